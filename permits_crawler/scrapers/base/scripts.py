"""Named scripts evaluated inside portal pages.

Each constant is a single arrow function passed to ``page.evaluate`` with at
most one argument. Scripts never throw: failures come back as ``false`` /
``null`` so the Python side decides what a failure means.
"""

FRAMEWORK_READY = """
() => {
    try {
        const ng = window.angular;
        if (ng === undefined) return false;
        const injector = ng.element(document).injector();
        if (!injector) return false;
        return !injector.get("$http").pendingRequests.length;
    } catch (e) {
        return false;
    }
}
"""

ELEMENT_VISIBLE = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    const style = window.getComputedStyle(el);
    return style.display !== "none"
        && style.visibility !== "hidden"
        && !el.classList.contains("ng-hide");
}
"""

# Dotted-path helpers shared by the scope scripts. ``lookup`` returns the
# parent object and key of a path; ``resolveArgs`` appends the values found at
# ``call.arg_paths`` to the literal ``call.args``.
_SCOPE_HELPERS = """
    const lookup = (root, path) => {
        const parts = path.split(".");
        let parent = root;
        for (let i = 0; i < parts.length - 1; i++) {
            if (parent === null || parent === undefined) return null;
            parent = parent[parts[i]];
        }
        if (parent === null || parent === undefined || typeof parent !== "object") return null;
        return {parent: parent, key: parts[parts.length - 1]};
    };
    const resolveArgs = (scope, call) => (call.args || []).concat(
        (call.arg_paths || []).map((p) => {
            const slot = lookup(scope, p);
            return slot ? slot.parent[slot.key] : undefined;
        })
    );
    const invokeFirst = (scope, calls) => {
        for (const call of calls) {
            const slot = lookup(scope, call.path);
            if (slot && typeof slot.parent[slot.key] === "function") {
                slot.parent[slot.key].apply(slot.parent, resolveArgs(scope, call));
                return call.path;
            }
        }
        return null;
    };
    const scopeOf = (selector) => {
        const host = document.querySelector(selector);
        if (!host) return null;
        try { return ng.element(host).scope() || null; } catch (e) { return null; }
    };
"""

# Assign ``value`` to the first model path whose parent object exists on the
# scope of one of ``scopeSelectors``, then invoke the first callable in
# ``calls``. Also pushes the value through the element's ngModel controller.
SCOPE_ASSIGN = """
({selector, scopeSelectors, modelPaths, calls, value}) => {
    const ng = window.angular;
    const result = {assigned: null, called: null};
    if (!ng) return result;
""" + _SCOPE_HELPERS + """
    for (const scopeSelector of scopeSelectors) {
        const scope = scopeOf(scopeSelector);
        if (!scope) continue;
        try {
            scope.$apply(() => {
                for (const path of modelPaths) {
                    const slot = lookup(scope, path);
                    if (slot) { slot.parent[slot.key] = value; result.assigned = path; break; }
                }
                result.called = invokeFirst(scope, calls);
            });
        } catch (e) {}
        if (result.assigned || result.called) break;
    }
    const el = document.querySelector(selector);
    if (el) {
        try {
            const ngEl = ng.element(el);
            const ctrl = ngEl.controller("ngModel");
            const elScope = ngEl.scope();
            if (ctrl && elScope) {
                elScope.$apply(() => { ctrl.$setViewValue(value); ctrl.$render(); });
            }
        } catch (e) {}
    }
    return result;
}
"""

# Invoke the first callable in ``calls`` on one of the scopes; when none is
# callable, assign ``fallbackValue`` to the first defined model path.
SCOPE_INVOKE = """
({scopeSelectors, modelPaths, calls, fallbackValue}) => {
    const ng = window.angular;
    if (!ng) return null;
""" + _SCOPE_HELPERS + """
    for (const scopeSelector of scopeSelectors) {
        const scope = scopeOf(scopeSelector);
        if (!scope) continue;
        let outcome = null;
        try {
            scope.$apply(() => {
                outcome = invokeFirst(scope, calls);
                if (outcome) return;
                for (const path of modelPaths) {
                    const slot = lookup(scope, path);
                    if (slot && slot.parent[slot.key] !== undefined) {
                        slot.parent[slot.key] = fallbackValue;
                        outcome = path;
                        return;
                    }
                }
            });
        } catch (e) {}
        if (outcome) return outcome;
    }
    return null;
}
"""

NATIVE_SET_VALUE = """
({selector, value}) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    el.value = value;
    el.dispatchEvent(new Event("input", {bubbles: true}));
    el.dispatchEvent(new Event("change", {bubbles: true}));
    return true;
}
"""

NATIVE_CLICK = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    el.click();
    return true;
}
"""

BODY_TEXT = """
() => (document.body ? (document.body.innerText || document.body.textContent || "") : "")
"""

# Clicks the first pagination anchor whose text says "Next" but not "Prev".
CLICK_NEXT_PAGE_LINK = """
(selector) => {
    const links = Array.from(document.querySelectorAll(selector));
    const next = links.find((el) => {
        const text = el.textContent || "";
        return text.includes("Next") && !text.includes("Prev");
    });
    if (!next) return false;
    next.click();
    return true;
}
"""
