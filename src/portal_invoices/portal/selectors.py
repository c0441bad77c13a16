from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PortalSelectors:
    """
    The portal has no stable ids or test hooks; selectors may change over time.
    Keep all UI selectors/text hooks here for easy maintenance.

    Candidate tuples are ordered: the first candidate that matches wins.
    """

    # Presence of any of these means we are looking at the login form (i.e. not authenticated).
    login_form: str = 'input[name="username"], input[name="login"], input[type="password"]'

    # Login
    username_candidates: tuple[str, ...] = (
        'input[name="username"]',
        'input[name="login"]',
        'input[id="username"]',
        "#username",
    )
    password_candidates: tuple[str, ...] = (
        'input[name="password"]',
        'input[type="password"]',
        "#password",
    )
    submit_candidates: tuple[str, ...] = (
        'input[type="submit"]',
        'button[type="submit"]',
        'button:has-text("Войти")',
        'button:has-text("Вход")',
        'input[value="Войти"]',
    )

    # Navigation towards the invoices section. Matched case-insensitively against anchor text
    # (the site upper-cases some menu items via CSS text-transform).
    documents_nav_keywords: tuple[str, ...] = (
        "выставленные счета",
        "счета-фактуры",
        "счета фактур",
        "счета",
        "документы",
        "финансы",
        "invoices",
        "documents",
        "billing",
    )

    # Anchors that are worth inspecting during discovery.
    anchors: str = "a[href]"
