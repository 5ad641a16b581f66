import hashlib

from user_agents import parse

from apps.common.utils import get_client_ip


def device_type_for(user_agent):
    if user_agent.is_tablet:
        return "tablet"
    if user_agent.is_mobile:
        return "mobile"
    return "desktop"


def extract_device_info(request):
    """
    Describe the requesting device from its headers.

    The device id is an anonymous fingerprint: the first 16 hex chars of
    sha256 over browser, OS, raw user agent and Accept-Language.
    """
    ua_string = request.META.get("HTTP_USER_AGENT", "")
    accept_language = request.META.get("HTTP_ACCEPT_LANGUAGE", "")
    user_agent = parse(ua_string)
    browser = user_agent.browser.family
    os_name = user_agent.os.family

    fingerprint = hashlib.sha256(
        f"{browser}-{os_name}-{ua_string}-{accept_language}".encode()
    ).hexdigest()[:16]

    return {
        "device_id": fingerprint,
        "device_name": f"{browser} on {os_name}",
        "device_type": device_type_for(user_agent),
        "browser": f"{browser} {user_agent.browser.version_string}".strip(),
        "os": f"{os_name} {user_agent.os.version_string}".strip(),
        "user_agent": ua_string,
        "location": {
            "ip": get_client_ip(request),
            "city": "Unknown",
            "country": "Unknown",
            "campus": "Unknown",
        },
    }
