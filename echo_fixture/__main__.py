from echo_fixture.app import main

if __name__ == "__main__":
    raise SystemExit(main())
