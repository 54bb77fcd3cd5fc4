"""Lookup collaborators: Supabase repositories and the formatting tools."""
from routegraph.tools.ait_tools import AITTools
from routegraph.tools.cve_tools import CVETools

__all__ = ["AITTools", "CVETools"]
