"""python -m superbuild"""

from superbuild.cli import main

if __name__ == "__main__":
    main()
