from protonic.cli import main

main()
