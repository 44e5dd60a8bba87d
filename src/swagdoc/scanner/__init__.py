"""Source scanning: file discovery, Go source reading and directive tokenizing."""
