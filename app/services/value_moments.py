"""Product areas the analysis pipeline assigns as a trial's primary value moment."""

from __future__ import annotations

from app.schemas import ValueMomentOption

VALUE_MOMENT_OPTIONS: tuple[ValueMomentOption, ...] = (
    ValueMomentOption(value="Infrastructure Monitoring", label="Infrastructure Monitoring"),
    ValueMomentOption(value="Logs", label="Logs"),
    ValueMomentOption(value="APM", label="APM"),
    ValueMomentOption(value="Billing", label="Billing"),
    ValueMomentOption(value="User Management", label="User Management"),
    ValueMomentOption(value="Agent Installation", label="Agent Installation"),
    ValueMomentOption(value="Integrations", label="Integrations"),
    ValueMomentOption(value="Monitors", label="Monitors"),
    ValueMomentOption(
        value="Billing and Subscription Management",
        label="Billing & Subscription",
    ),
    ValueMomentOption(value="Organization Settings", label="Organization Settings"),
)

__all__ = ["VALUE_MOMENT_OPTIONS"]
