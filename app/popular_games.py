"""Curated popularity ordering used to seed the catalog."""

from __future__ import annotations

from typing import Iterable


def dedupe_appids(appids: Iterable[int]) -> tuple[int, ...]:
    """Return appids with repeats removed, keeping first occurrences."""

    seen: set[int] = set()
    ordered: list[int] = []
    for appid in appids:
        if appid in seen:
            continue
        seen.add(appid)
        ordered.append(appid)
    return tuple(ordered)


# Roughly ordered by concurrent player count. Several titles appear in more
# than one editorial group, so the raw list is deduplicated below.
_RAW_POPULAR_APPIDS: tuple[int, ...] = (
    730, 570, 440, 1938090, 359550, 1172470, 578080, 1269260,
    2183900, 553850, 271590, 1091500, 1174180, 1245620, 2358720, 1817070,
    1203220, 2054970, 1599340, 646570, 287700, 292030, 489830, 377160,
    1938090, 1962663, 366840, 209160, 202970, 346110, 252490, 304930,
    221100, 413150, 381210, 1966720, 700330, 1551360, 1222680, 2195250,
    1190460, 1158310, 1466860, 1843760, 945360, 1325200, 1623730, 2369390,
    2379780, 105600, 394360, 1091500, 236850, 1675200, 620, 400,
    220, 320, 1245620, 1426210, 1675200, 1517290, 203160, 1172470,
    2322560, 1928980, 292030, 548430, 678950, 397540, 1384160, 1328670,
    1293830, 286160, 238960, 582010, 1174180, 275850, 976730, 1418630,
    1145360, 337000, 570940, 211420, 374320, 1422450, 1604030, 1259420,
    444090, 1222690, 1080110, 1080110, 222900, 550, 368020, 534380,
    1237970, 8930, 289070, 255710, 264710, 848450, 253230, 774241,
    367520, 1150690, 1449560, 1843090, 1817190, 2379780, 1938090, 2050650,
    2073850, 252950, 444090, 863550, 105600, 70, 10, 240,
    230410, 1062090, 1222690, 4000, 72850, 22380, 22370, 1144200,
    348360, 1238810, 1517290, 230410, 1449850, 975370, 524220, 739630,
    1172620, 2281060, 1426210, 2357570, 1313860, 2239550,
)

POPULAR_APPIDS: tuple[int, ...] = dedupe_appids(_RAW_POPULAR_APPIDS)
POPULAR_RANK: dict[int, int] = {
    appid: index for index, appid in enumerate(POPULAR_APPIDS)
}
