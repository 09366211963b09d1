"""Pure table transformations of the summary pipeline."""
