"""Best-effort closer for cookie, age-gate and location modals."""

import logging


logger = logging.getLogger(__name__)


DISMISS_JS = r'''() => {
    const isVisible = (el) => {
        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) return false;
        const s = getComputedStyle(el);
        return s.display !== 'none' && s.visibility !== 'hidden';
    };
    const inChrome = (el) => !!el.closest('nav, header, footer, [role="navigation"]');

    const containers = [...document.querySelectorAll(
        '[role="dialog"], [role="alertdialog"], [aria-modal="true"], ' +
        '[class*="modal"], [class*="popup"], [class*="Popup"], [class*="Modal"], ' +
        '[class*="cookie"], [id*="cookie"], [class*="consent"], [id*="consent"], ' +
        '[class*="gdpr"], [class*="age-gate"], [class*="agegate"], [class*="overlay"]'
    )].filter(isVisible);

    const controlsIn = (container) => [...container.querySelectorAll(
        'button, a, [role="button"], [class*="close"], [aria-label]'
    )].filter(el => isVisible(el) && !inChrome(el));

    // 1. Close affordances inside dialog-like containers
    const closeWords = ['close', 'dismiss', 'no thanks', 'not now', 'maybe later'];
    for (const container of containers) {
        for (const el of controlsIn(container)) {
            const text = (el.textContent || '').trim().toLowerCase();
            const aria = (el.getAttribute('aria-label') || '').toLowerCase();
            const cls = (typeof el.className === 'string' ? el.className : '').toLowerCase();
            if (text.length > 40) continue;
            const isX = text === '×' || text === '✕' || text === 'x';
            if (isX || closeWords.some(w => text.includes(w) || aria.includes(w)) ||
                /(^|[\s_-])close([\s_-]|$)/.test(cls)) {
                el.click();
                return 'close';
            }
        }
    }

    // 2. Accept / consent vocabulary inside the same containers
    const phrases = ['accept', 'allow all', 'agree', 'got it', 'continue', 'i am 21', "i'm 21", 'enter site'];
    const shortWords = ['ok', 'okay', 'yes', 'no'];
    for (const container of containers) {
        for (const el of controlsIn(container)) {
            const text = (el.textContent || '').trim().toLowerCase();
            if (!text || text.length > 40) continue;
            const phraseHit = phrases.some(p => text.includes(p));
            const wordHit = shortWords.some(w => new RegExp('\\b' + w + '\\b').test(text));
            if (phraseHit || wordHit) {
                el.click();
                return 'accept';
            }
        }
    }

    // 3. Remove a full-width fixed overlay
    for (const el of document.querySelectorAll('body *')) {
        const s = getComputedStyle(el);
        if (s.position !== 'fixed') continue;
        const z = parseInt(s.zIndex, 10);
        if (isNaN(z) || z < 100) continue;
        if (el.tagName === 'NAV' || el.tagName === 'HEADER') continue;
        const rect = el.getBoundingClientRect();
        if (rect.width > window.innerWidth * 0.8) {
            el.remove();
            document.body.style.overflow = 'auto';
            return 'remove';
        }
    }
    return null;
}'''


async def dismiss_popups(page) -> None:
    """Take at most one dismiss action. Never raises; call again for stacked popups."""
    try:
        action = await page.evaluate(DISMISS_JS)
        if action:
            logger.debug("[popups] %s action taken", action)
            await page.wait_for_timeout(300)
    except Exception as e:
        logger.debug("[popups] dismiss failed: %s", e)
