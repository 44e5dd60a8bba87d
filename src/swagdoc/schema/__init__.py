"""Go type parsing, the Type Table and the Schema Resolver."""
