"""Language model analysis of discussion threads."""
