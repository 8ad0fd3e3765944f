"""
In-page scripts for the contact reveal protocol.

Each script is a function expression evaluated via ``page.evaluate(script, arg)``
with the ``ContactOptions.to_js_arg()`` mapping as its single argument. Shared
JS helpers are concatenated into each script at import time: every evaluation
is serialized separately into the page.
"""

_NORMALIZE = """
    const normalize = (value) => {
        if (!value || typeof value !== 'string') return '';
        return value.normalize('NFD').replace(/[\\u0300-\\u036f]/g, '')
            .replace(/\\s+/g, ' ').trim().toLowerCase();
    };
"""

_IS_VISIBLE = """
    const isVisible = (element) => {
        let current = element;
        while (current && current instanceof HTMLElement) {
            const style = window.getComputedStyle(current);
            if (style.display === 'none' || style.visibility === 'hidden' || Number(style.opacity) === 0) {
                return false;
            }
            if (current.hasAttribute('aria-hidden') && current.getAttribute('aria-hidden') !== 'false') {
                return false;
            }
            current = current.parentElement;
        }
        return true;
    };
"""

_CONTACT_AREAS = """
    const contactAreas = (icon) => {
        if (!icon) return [];
        const parent = icon.parentElement;
        const grand = parent ? parent.parentElement : null;
        return [
            icon.closest('[class*="Row"]'),
            icon.closest('[class*="Col"]'),
            icon.closest('button'),
            parent,
            grand,
            parent ? parent.nextElementSibling : null,
            grand ? grand.nextElementSibling : null,
        ].filter(Boolean);
    };
    const visibleText = (root) => {
        if (!root) return '';
        const parts = [];
        const walker = document.createTreeWalker(root, NodeFilter.SHOW_TEXT, null);
        while (walker.nextNode()) {
            const node = walker.currentNode;
            if (!node.parentElement || !isVisible(node.parentElement)) continue;
            const chunk = (node.textContent || '').trim();
            if (chunk) parts.push(chunk);
        }
        return parts.join(' ');
    };
"""

HAS_VISIBLE_CONTACT_JS = (
    "(options) => {"
    + _NORMALIZE
    + _IS_VISIBLE
    + _CONTACT_AREAS
    + """
    const kind = options.kind || 'phone';
    const placeholder = options.placeholderPattern ? new RegExp(options.placeholderPattern, 'i') : null;
    const valueRe = options.valuePattern ? new RegExp(options.valuePattern, kind === 'phone' ? '' : 'i') : null;
    const isValue = (text) => !!valueRe && valueRe.test(text);

    const iconHasValue = (icon) => {
        for (const area of contactAreas(icon)) {
            const text = normalize(visibleText(area));
            if (!text || (placeholder && placeholder.test(text))) continue;
            if (isValue(text)) return true;
            if (kind === 'email') {
                const links = Array.from(area.querySelectorAll('a[href^="mailto:"]'));
                if (links.some(a => isValue(a.getAttribute('href') || '') || isValue(a.innerText || a.textContent || ''))) {
                    return true;
                }
            }
        }
        return false;
    };

    for (const id of options.iconTestIds || []) {
        if (iconHasValue(document.querySelector(`svg[data-testid="${id}"]`))) return true;
    }

    if (kind === 'email') {
        const mailto = document.querySelector('a[href^="mailto:"]');
        if (mailto && isVisible(mailto)) {
            const href = normalize(mailto.getAttribute('href') || '');
            const label = normalize(mailto.innerText || mailto.textContent || '');
            if (isValue(href) || isValue(label)) return true;
        }
    }
    return false;
}"""
)

# Finds the reveal control and tags it so the driver can click it by selector.
LOCATE_TRIGGER_JS = (
    "(options) => {"
    + _NORMALIZE
    + """
    const kind = options.kind || 'phone';
    const phrases = options.labelPhrases || [];
    const marker = 'data-rs-reveal';
    document.querySelectorAll(`[${marker}="${kind}"]`).forEach(el => el.removeAttribute(marker));

    const tag = (element) => {
        if (!element) return null;
        const target = (element.closest && element.closest('button')) || element;
        target.setAttribute(marker, kind);
        return `[${marker}="${kind}"]`;
    };
    const labelled = (element) => {
        const text = normalize(element.innerText || element.textContent || '');
        return !!text && phrases.some(p => text.includes(p));
    };

    for (const id of options.iconTestIds || []) {
        const icon = document.querySelector(`svg[data-testid="${id}"]`);
        const button = icon ? icon.closest('button') : null;
        if (button) return tag(button);
    }

    const buttons = document.querySelectorAll(
        'button, [role="button"], .MuiButtonBase-root, .Button__StyledButton-sc-1ovnfsw-1'
    );
    for (const element of buttons) {
        if (labelled(element)) return tag(element);
    }

    // Innermost labelled span/div: deepest matching node comes last in document order
    let fallback = null;
    for (const element of document.querySelectorAll('span, div')) {
        if (labelled(element)) fallback = element;
    }
    return tag(fallback);
}"""
)

COLLECT_CONTACT_VALUES_JS = (
    "(options) => {"
    + _NORMALIZE
    + _IS_VISIBLE
    + _CONTACT_AREAS
    + """
    const kind = options.kind || 'phone';
    const placeholder = options.placeholderPattern ? new RegExp(options.placeholderPattern, 'i') : null;
    const phoneRe = /\\(?\\d{2}\\)?\\s*9?\\d{4,5}[-\\s]?\\d{4}/g;
    const emailRe = /[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\\.[a-zA-Z]{2,}/gi;
    const values = [];
    const seen = new Set();

    const push = (raw) => {
        const cleaned = (raw || '').replace(/^mailto:/i, '').trim();
        if (!cleaned) return;
        const re = kind === 'phone' ? new RegExp(phoneRe.source) : new RegExp(emailRe.source, 'i');
        if (!re.test(cleaned)) return;
        const key = cleaned.toLowerCase();
        if (seen.has(key)) return;
        seen.add(key);
        values.push(cleaned);
    };

    const inspect = (node) => {
        const text = visibleText(node).trim();
        if (text && !(placeholder && placeholder.test(normalize(text)))) {
            (text.match(kind === 'phone' ? phoneRe : emailRe) || []).forEach(push);
        }
        if (kind === 'email') {
            node.querySelectorAll('a[href^="mailto:"]').forEach(a => {
                push(a.getAttribute('href') || '');
                push(a.innerText || a.textContent || '');
            });
        }
    };

    for (const id of options.iconTestIds || []) {
        const icon = document.querySelector(`svg[data-testid="${id}"]`);
        if (icon) contactAreas(icon).forEach(inspect);
    }

    if (kind === 'email' && values.length === 0) {
        const mailto = document.querySelector('a[href^="mailto:"]');
        if (mailto && isVisible(mailto)) {
            push(mailto.getAttribute('href') || '');
            push(mailto.innerText || mailto.textContent || '');
        }
    }
    return values.length ? values.join(', ') : null;
}"""
)
