"""python -m vcatalog 入口"""

from vcatalog.cli import main

main()
