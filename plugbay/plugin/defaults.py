"""
Built-in default packages shipped with the host.

These join the repository view next to disk entries and are auto-installed
once by LifecycleManager.reconcile_defaults().
"""

from plugbay.plugin.manifest import Manifest, PluginKind
from plugbay.plugin.package import ContentBlob, Package

ENTERPRISE_THEME_ID = "com.plugbay.theme.enterprise"

_ENTERPRISE_CSS = """\
/* Enterprise theme overrides */
body {
  font-family: 'Roboto', -apple-system, 'Segoe UI', sans-serif !important;
  background-color: #F4F5F7 !important;
}
.dark body { background-color: #172B4D !important; }

header {
  background-color: #FFFFFF !important;
  border-bottom: 1px solid #DFE1E6 !important;
}

button {
  border-radius: 3px !important;
  font-weight: 500 !important;
  text-transform: none !important;
}
"""

_ENTERPRISE_PY = '''\
"""Enterprise theme: style-only plugin with an informational panel."""


def describe():
    return (
        "The interface uses the Enterprise design system: sans-serif type "
        "and professional blue accents."
    )


PlugbayTheme_Enterprise = {"Component": describe, "title": "Enterprise Theme Active"}
'''


def enterprise_theme() -> Package:
    """Enterprise theme, shipped disabled."""
    manifest = Manifest(
        id=ENTERPRISE_THEME_ID,
        name="Enterprise Theme",
        version="1.0.0",
        description="Turns the dashboard into a blue-scale enterprise interface.",
        main="theme.py",
        style="style.css",
        global_var="PlugbayTheme_Enterprise",
        kind=PluginKind.THEME,
    )
    return Package(
        manifest=manifest,
        files={
            "theme.py": ContentBlob.for_file("theme.py", _ENTERPRISE_PY.encode("utf-8")),
            "style.css": ContentBlob.for_file("style.css", _ENTERPRISE_CSS.encode("utf-8")),
        },
        enabled=False,
    )


def builtin_packages() -> list[Package]:
    return [enterprise_theme()]
