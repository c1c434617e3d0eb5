"""Allow ``python -m sonar``."""

from sonar.cli import main

main()
