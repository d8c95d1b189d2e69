"""python -m nexbot"""

from nexbot.main import main

main()
