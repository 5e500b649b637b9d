# Quran-Audio.py

import sys

from quran_audio.app import main

if __name__ == "__main__":
    sys.exit(main())
