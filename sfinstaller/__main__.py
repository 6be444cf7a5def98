# sfinstaller/__main__.py

from sfinstaller.cli.main import main

if __name__ == "__main__":
    main()
