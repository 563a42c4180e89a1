from popstats.cli.admin import main

main()
