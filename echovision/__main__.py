"""Allow running the package as: python -m echovision"""
import os
import sys
import warnings

# Suppress startup warnings and verbose output
os.environ['TRANSFORMERS_VERBOSITY'] = 'error'
os.environ['PYGAME_HIDE_SUPPORT_PROMPT'] = '1'  # Hide pygame message
warnings.filterwarnings('ignore', category=DeprecationWarning)
warnings.filterwarnings('ignore', category=FutureWarning)

from echovision.app import main

if __name__ == "__main__":
    sys.exit(main())
