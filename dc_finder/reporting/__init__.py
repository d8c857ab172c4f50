"""Report generation for the datacenter finder."""

from .report_generator import format_report, generate, provider_breakdown

__all__ = ['format_report', 'generate', 'provider_breakdown']
