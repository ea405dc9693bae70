"""Domain records, form rule sets, request schemas and the submission controller."""
