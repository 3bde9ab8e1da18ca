"""
Stealth profile: launch flags and init-script patches that hide automation.

Patches are installed on a fresh page with add_init_script before the
first navigation, so every document the page loads runs them before any
site script. The patch set is immutable; nothing here is site-specific.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

log = logging.getLogger(__name__)

VIEWPORT = {'width': 1920, 'height': 1080}

LAUNCH_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-gpu',
    '--disable-software-rasterizer',
    '--disable-background-timer-throttling',
    '--disable-backgrounding-occluded-windows',
    '--disable-renderer-backgrounding',
    '--disable-blink-features=AutomationControlled',
    '--disable-features=VizDisplayCompositor,TranslateUI',
    '--no-first-run',
    '--disable-default-apps',
    '--disable-background-networking',
    '--disable-client-side-phishing-detection',
    '--disable-sync',
    '--disable-translate',
    '--hide-scrollbars',
    '--mute-audio',
    '--disable-infobars',
    '--disable-notifications',
    '--disable-save-password-bubble',
    '--disable-popup-blocking',
    '--disable-ipc-flooding-protection',
    '--disable-hang-monitor',
    '--disable-prompt-on-repost',
    '--disable-domain-reliability',
    '--disable-component-extensions-with-background-pages',
    f'--window-size={VIEWPORT["width"]},{VIEWPORT["height"]}',
]

# Playwright defaults we do not want on the command line
IGNORE_DEFAULT_ARGS = ['--enable-automation']

USER_AGENTS = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
)

EXTRA_HEADERS = {
    'Accept': (
        'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,'
        'image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7'
    ),
    'Accept-Language': 'en-US,en;q=0.9',
    'Cache-Control': 'max-age=0',
    'DNT': '1',
    'Upgrade-Insecure-Requests': '1',
    'Sec-Fetch-Dest': 'document',
    'Sec-Fetch-Mode': 'navigate',
    'Sec-Fetch-Site': 'none',
    'Sec-Fetch-User': '?1',
}


@dataclass(frozen=True)
class StealthPatch:
    """One named property override, as a JS snippet run on every new document."""

    name: str
    script: str


# -- Patches ----------------------------------------------------------------

WEBDRIVER = StealthPatch('webdriver', """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined, configurable: true });
""")

CHROME_RUNTIME = StealthPatch('chrome-runtime', """
if (window.chrome) {
  delete window.chrome.loadTimes;
  delete window.chrome.csi;
  delete window.chrome.app;
  delete window.chrome.runtime;
}
delete window.__playwright;
delete window.__pw_manual;
""")

PLUGINS = StealthPatch('plugins', """
Object.defineProperty(navigator, 'plugins', {
  get: () => [
    {0: {type: 'application/x-google-chrome-pdf', suffixes: 'pdf', description: 'Portable Document Format', enabledPlugin: null},
     description: 'Portable Document Format', filename: 'internal-pdf-viewer', length: 1, name: 'Chrome PDF Plugin'},
    {0: {type: 'application/pdf', suffixes: 'pdf', description: 'Portable Document Format', enabledPlugin: null},
     description: 'Portable Document Format', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', length: 1, name: 'Chrome PDF Viewer'},
  ],
});
""")

LANGUAGES = StealthPatch('languages', """
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en', 'en-GB'] });
""")

PLATFORM = StealthPatch('platform', """
Object.defineProperty(navigator, 'platform', { get: () => 'Win32' });
""")

HARDWARE = StealthPatch('hardware', """
Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 4 });
Object.defineProperty(navigator, 'deviceMemory', { get: () => 8 });
Object.defineProperty(navigator, 'connection', {
  get: () => ({ effectiveType: '4g', rtt: 100, downlink: 2.0 }),
});
""")

PERMISSIONS = StealthPatch('permissions', """
if (navigator.permissions && navigator.permissions.query) {
  const originalQuery = navigator.permissions.query.bind(navigator.permissions);
  navigator.permissions.query = (parameters) => (
    parameters.name === 'notifications'
      ? Promise.resolve({ state: 'granted' })
      : originalQuery(parameters)
  );
}
""")

SCREEN = StealthPatch('screen', """
Object.defineProperty(screen, 'width', { get: () => 1920 });
Object.defineProperty(screen, 'height', { get: () => 1080 });
Object.defineProperty(screen, 'availWidth', { get: () => 1920 });
Object.defineProperty(screen, 'availHeight', { get: () => 1040 });
Object.defineProperty(screen, 'colorDepth', { get: () => 24 });
Object.defineProperty(screen, 'pixelDepth', { get: () => 24 });
""")

TO_STRING = StealthPatch('function-to-string', """
const originalToString = Function.prototype.toString;
Function.prototype.toString = function () {
  if (this === navigator.webdriver) {
    return 'function webdriver() { [native code] }';
  }
  return originalToString.call(this);
};
""")

INPUT_LISTENERS = StealthPatch('input-listeners', """
['mousedown', 'mouseup', 'mousemove', 'click', 'touchstart', 'touchend', 'touchmove']
  .forEach((type) => document.addEventListener(type, () => {}, true));
""")

BATTERY = StealthPatch('battery', """
if (navigator.getBattery) {
  navigator.getBattery = () => Promise.resolve({
    charging: true, chargingTime: 0, dischargingTime: Infinity, level: 1,
  });
}
""")


class StealthPatchSet:
    """Immutable, ordered collection of stealth patches."""

    def __init__(self, patches: tuple[StealthPatch, ...] | list[StealthPatch]) -> None:
        self._patches = tuple(patches)
        names = [p.name for p in self._patches]
        if len(set(names)) != len(names):
            raise ValueError(f'Duplicate stealth patch names: {names}')

    @property
    def patches(self) -> tuple[StealthPatch, ...]:
        return self._patches

    @property
    def names(self) -> list[str]:
        return [p.name for p in self._patches]

    def __len__(self) -> int:
        return len(self._patches)

    def __iter__(self):
        return iter(self._patches)

    def without(self, *names: str) -> StealthPatchSet:
        """A copy with the named patches removed."""
        return StealthPatchSet(tuple(p for p in self._patches if p.name not in names))

    async def apply(self, page, session_id: str = '') -> None:
        """Install every patch on a fresh page. Must run before the first goto."""
        for patch in self._patches:
            await page.add_init_script(script=patch.script)
        log.info('[%s] Applied %d stealth patches: %s', session_id, len(self), ', '.join(self.names))


DEFAULT_PATCHES = StealthPatchSet((
    WEBDRIVER,
    CHROME_RUNTIME,
    PLUGINS,
    LANGUAGES,
    PLATFORM,
    HARDWARE,
    PERMISSIONS,
    SCREEN,
    TO_STRING,
    INPUT_LISTENERS,
    BATTERY,
))


def context_options(user_agent: str | None = None) -> dict:
    """Keyword arguments for browser.new_context(): UA, headers, viewport, locale."""
    return {
        'user_agent': user_agent or random.choice(USER_AGENTS),
        'viewport': dict(VIEWPORT),
        'screen': dict(VIEWPORT),
        'locale': 'en-US',
        'extra_http_headers': dict(EXTRA_HEADERS),
    }
