from testweave.cli import main

main()
