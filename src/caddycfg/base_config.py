from __future__ import annotations

from collections.abc import Sequence
from urllib.parse import urlsplit

from .configmanager import DEFAULT_LISTEN
from .identifiers import encode_json_string


def admin_listen_address(admin_url: str) -> str:
    """`admin.listen` takes host:port without a scheme."""
    url = admin_url.strip()
    if not url:
        raise ValueError("admin_url is required")
    if "://" not in url:
        url = "http://" + url
    netloc = urlsplit(url).netloc
    if not netloc:
        raise ValueError(f"Invalid admin_url: {admin_url}")
    return netloc


def base_config(admin_url: str, server_key: str, *, listen: Sequence[str] = DEFAULT_LISTEN) -> str:
    """Return a base configuration with one HTTP server and an empty routes array.

    Shape:

        "admin": {"listen": <admin_url host:port>}
        "apps"."http"."servers": {"<server_key>": {
            "automatic_https": {"disable": true},
            "listen": [":443"],
            "routes": []}}

    Pass it to CaddyAdminApi.load as the initial configuration that routes are
    later added to.
    """
    if not server_key:
        raise ValueError("server_key is required")
    if not listen:
        raise ValueError("listen must not be empty")
    listen_items = ",\n".join(f"\t\t\t\t\t\t{encode_json_string(a)}" for a in listen)
    return (
        "{\n"
        "\t\"admin\": {\n"
        f"\t\t\"listen\": {encode_json_string(admin_listen_address(admin_url))}\n"
        "\t},\n"
        "\t\"apps\": {\n"
        "\t\t\"http\": {\n"
        "\t\t\t\"servers\": {\n"
        f"\t\t\t\t{encode_json_string(server_key)}: {{\n"
        "\t\t\t\t\t\"automatic_https\": {\n"
        "\t\t\t\t\t\t\"disable\": true\n"
        "\t\t\t\t\t},\n"
        "\t\t\t\t\t\"listen\": [\n"
        f"{listen_items}\n"
        "\t\t\t\t\t],\n"
        "\t\t\t\t\t\"routes\": []\n"
        "\t\t\t\t}\n"
        "\t\t\t}\n"
        "\t\t}\n"
        "\t}\n"
        "}\n"
    )
