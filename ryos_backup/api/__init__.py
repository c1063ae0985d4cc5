"""HTTP surface for the backup engine."""
