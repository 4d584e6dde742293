"""Tool room inventory, loans and calibration tracking."""
