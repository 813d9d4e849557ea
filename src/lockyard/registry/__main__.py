from lockyard.cli import registry_main

if __name__ == "__main__":
    raise SystemExit(registry_main())
