"""Calendar feed handling: models, date/time normalization, ICS parsing, fetching."""
