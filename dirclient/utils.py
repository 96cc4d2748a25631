from __future__ import annotations

PLACEHOLDER = "%s"


def escape_ldap_filter_value(value: str) -> str:
    """RFC 4515 escaping for LDAP filter values."""
    out: list[str] = []
    for ch in value:
        if ch == "\\":
            out.append("\\5c")
        elif ch == "*":
            out.append("\\2a")
        elif ch == "(":
            out.append("\\28")
        elif ch == ")":
            out.append("\\29")
        elif ch == "\x00":
            out.append("\\00")
        else:
            out.append(ch)
    return "".join(out)


def count_placeholders(template: str) -> int:
    """Number of `%s` slots in a filter template (`%%` is a literal percent)."""
    n = 0
    i = 0
    s = template or ""
    while i < len(s):
        if s[i] == "%" and i + 1 < len(s):
            if s[i + 1] == "s":
                n += 1
            i += 2
            continue
        i += 1
    return n


def format_filter(template: str, value: str) -> str:
    """Substitute an escaped value into a single-placeholder filter template."""
    return template % escape_ldap_filter_value(value or "")
