"""Domain records for seasonboard."""
