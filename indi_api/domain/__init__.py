"""Pure domain rules: slugs, analytics counting and card field mapping."""
