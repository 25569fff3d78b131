"""rulekit - rule registry, scoping and orchestration for Python linting."""
