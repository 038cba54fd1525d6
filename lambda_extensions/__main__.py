"""Allow running the extension as a module: python -m lambda_extensions."""

from lambda_extensions.runner import main

if __name__ == "__main__":
    main()
