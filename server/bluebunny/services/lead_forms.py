# Field rules for the two lead forms. Messages match what the site's forms
# show inline, so a server-side rejection reads the same as a client-side one.

from __future__ import annotations

import re
from collections.abc import Mapping

from bluebunny.schemas import FormKind

ZIP_PATTERN = re.compile(r"^\d{5}(?:-\d{4})?$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PHONE_DIGITS = 10

CONSENT_ERROR = "Please confirm consent before submitting."
EMAIL_ERROR = "Enter a valid email address."


def _field(form: Mapping[str, str], name: str) -> str:
    value = form.get(name)
    return value.strip() if isinstance(value, str) else ""


def _phone_digits(phone: str) -> int:
    return sum(ch.isdigit() for ch in phone)


def form_kind(form: Mapping[str, str]) -> FormKind:
    """formKind field, defaulting to the hero quote form."""
    try:
        return FormKind(_field(form, "formKind") or FormKind.quote)
    except ValueError:
        return FormKind.quote


def validate_quote_form(form: Mapping[str, str]) -> dict[str, str]:
    """Hero section quote form: zip, phone, email, consent."""
    errors: dict[str, str] = {}

    if not ZIP_PATTERN.match(_field(form, "zipCode")):
        errors["zipCode"] = "Enter a valid 5-digit zip (e.g., 32801)."
    if _phone_digits(_field(form, "phone")) < MIN_PHONE_DIGITS:
        errors["phone"] = "Phone number must include 10 digits."
    if not EMAIL_PATTERN.match(_field(form, "email")):
        errors["email"] = EMAIL_ERROR
    if not form.get("consent"):
        errors["consent"] = CONSENT_ERROR

    return errors


def validate_onboarding_form(form: Mapping[str, str]) -> dict[str, str]:
    """Property-manager onboarding form."""
    errors: dict[str, str] = {}

    if _phone_digits(_field(form, "phone")) < MIN_PHONE_DIGITS:
        errors["phone"] = "Phone number must include at least 10 digits."
    if not EMAIL_PATTERN.match(_field(form, "email")):
        errors["email"] = EMAIL_ERROR
    if not _field(form, "serviceArea"):
        errors["serviceArea"] = "Enter a service area or zip code."
    if not _field(form, "portfolioSize"):
        errors["portfolioSize"] = "Select your portfolio size."
    if not _field(form, "pmsType"):
        errors["pmsType"] = "Select your PMS or calendar type."
    if not form.get("consent"):
        errors["consent"] = CONSENT_ERROR

    return errors


def validate_lead_form(form: Mapping[str, str]) -> dict[str, str]:
    """Field errors for whichever form was submitted; empty when valid."""
    if form_kind(form) is FormKind.pm_onboarding:
        return validate_onboarding_form(form)
    return validate_quote_form(form)
