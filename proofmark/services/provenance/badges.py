from html import escape


# -------------------------------
# Badge rendering
# -------------------------------

BADGE_TEXT = "Verified by Proofmark"

_BADGE_TEMPLATE = """<svg width="200" height="60" xmlns="http://www.w3.org/2000/svg">
  <defs>
    <linearGradient id="grad" x1="0%" y1="0%" x2="100%" y2="0%">
      <stop offset="0%" style="stop-color:#0ea5e9;stop-opacity:1" />
      <stop offset="100%" style="stop-color:#22c55e;stop-opacity:1" />
    </linearGradient>
  </defs>
  <rect width="200" height="60" fill="url(#grad)" rx="8"/>
  <text x="100" y="30" text-anchor="middle" fill="white" font-family="Arial, sans-serif" font-size="12" font-weight="bold">{text}</text>
  <text x="100" y="44" text-anchor="middle" fill="white" font-family="Arial, sans-serif" font-size="8" opacity="0.8">{label}</text>
  <text x="100" y="54" text-anchor="middle" fill="white" font-family="Arial, sans-serif" font-size="8" opacity="0.8">{trustmark_id}</text>
</svg>
"""


def origin_label(c2pa_present: bool, origin_status: str) -> str:
    if c2pa_present:
        return "Content Credentials verified"
    if origin_status == "not_found":
        return "Fingerprinted (no C2PA)"
    return f"Origin: {origin_status}"


def render_badge_svg(trustmark_id: str, c2pa_present: bool, origin_status: str) -> str:
    return _BADGE_TEMPLATE.format(
        text=escape(BADGE_TEXT),
        label=escape(origin_label(c2pa_present, origin_status)),
        trustmark_id=escape(trustmark_id),
    )


def badge_url(api_base_url: str, trustmark_id: str) -> str:
    return f"{api_base_url}/v1/badge/{trustmark_id}.svg"


def embed_snippets(public_base_url: str, api_base_url: str, trustmark_id: str) -> dict:
    page = f"{public_base_url}/t/{trustmark_id}"
    image = badge_url(api_base_url, trustmark_id)

    return {
        "html": (
            f'<a href="{escape(page)}" target="_blank">'
            f'<img src="{escape(image)}" alt="{escape(BADGE_TEXT)}" /></a>'
        ),
        "markdown": f"[![{BADGE_TEXT}]({image})]({page})",
        "url": f"/v1/badge/{trustmark_id}.svg",
    }
