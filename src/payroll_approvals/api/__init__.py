"""HTTP API for the payroll approval workflow."""
