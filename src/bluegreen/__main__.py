from bluegreen.cli.main import main

main()
