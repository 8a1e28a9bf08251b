"""
Raw JS payloads evaluated inside the page.

Every payload is a self-contained function expression.  Inputs travel as
the serialized Playwright argument and outputs come back as JSON-compatible
values or element handles; nothing is spliced into the source text.

Payloads that accept a ``debugBinding`` name report events through
``window.top[debugBinding](message, json)`` when that function exists.
"""

# ============================================================================
# CLIENT REGISTRY
# ___grecaptcha_cfg.clients is a nested, circular object with generated keys.
# It is encoded to a bounded depth: DOM nodes and windows become markers,
# functions become {__function__: name}, deeper objects become {}.
# ============================================================================
REGISTRY_SNAPSHOT = """
({ maxDepth, debugBinding }) => {
    const log = (message, data) => {
        try {
            if (debugBinding && window.top[debugBinding]) {
                window.top[debugBinding](message, JSON.stringify(data));
            }
        } catch (e) {}
    };
    if (!window || !window.__google_recaptcha_client) return null;
    const cfg = window.___grecaptcha_cfg;
    if (!cfg || !cfg.clients) return null;
    const keys = Object.keys(cfg.clients);
    if (!keys.length) return null;

    const encode = (value, depth) => {
        if (typeof value === 'function') {
            return { __function__: value.name || 'anonymous' };
        }
        if (value === window || (typeof Node !== 'undefined' && value instanceof Node)) {
            return { __html__: (value.nodeName || 'window').toLowerCase() };
        }
        if (value && typeof value === 'object') {
            if (depth >= maxDepth) return {};
            const out = {};
            for (const key of Object.keys(value)) {
                try {
                    out[key] = encode(value[key], depth + 1);
                } catch (e) {}
            }
            return out;
        }
        if (typeof value === 'number' && !isFinite(value)) return null;
        if (typeof value === 'bigint' || typeof value === 'symbol') return String(value);
        return value === undefined ? null : value;
    };

    const clients = {};
    for (const key of keys) clients[key] = encode(cfg.clients[key], 0);
    log('registry snapshot', { clients: keys.length });
    return clients;
}
"""

CLIENT_COUNT = """
() => Object.keys((window.___grecaptcha_cfg || {}).clients || {}).length
"""

# ============================================================================
# ELEMENT PROBES
# ============================================================================
IS_IN_VIEWPORT = """
(el) => {
    const rect = el.getBoundingClientRect();
    const height = window.innerHeight || document.documentElement.clientHeight;
    const width = window.innerWidth || document.documentElement.clientWidth;
    return rect.top >= 0 && rect.left >= 0
        && rect.bottom <= height && rect.right <= width;
}
"""

HAS_ENCLOSING_FORM = """
(el) => !!el.closest('form')
"""

FORM_RESPONSE_FIELD = """
(el, selector) => {
    const form = el.closest('form');
    return form ? form.querySelector(selector) : null;
}
"""

# ============================================================================
# MUTATIONS
# ============================================================================
PAINT_FRAME = """
(el, filter) => { el.style.filter = filter; }
"""

# Walk up to the direct child of <body> wrapping the challenge popup
HIDE_CHALLENGE_WINDOW = """
(el) => {
    let frame = el;
    while (frame && frame.parentElement && frame.parentElement !== document.body) {
        frame = frame.parentElement;
    }
    if (frame) frame.style.visibility = 'hidden';
    return !!frame;
}
"""

WRITE_RESPONSE = """
(el, token) => {
    el.innerHTML = token;
    if ('value' in el) el.value = token;
}
"""

# A string callback is an expression naming a global function
INVOKE_CALLBACK = """
({ clientKey, callbackPath, token, debugBinding }) => {
    const log = (message, data) => {
        try {
            if (debugBinding && window.top[debugBinding]) {
                window.top[debugBinding](message, JSON.stringify(data));
            }
        } catch (e) {}
    };
    const clients = (window.___grecaptcha_cfg || {}).clients || {};
    let callback = clients[clientKey];
    for (const part of callbackPath) {
        callback = callback == null ? undefined : callback[part];
    }
    log(' - callback - type', { typeof: typeof callback, clientKey });
    if (typeof callback === 'string') {
        callback = (0, eval)(callback);
    }
    if (typeof callback !== 'function') {
        throw new Error('Callback is not a function');
    }
    callback.call(window, token);
    log(' - callback - invoked', { clientKey });
    return true;
}
"""

USER_AGENT = """
() => navigator.userAgent
"""
