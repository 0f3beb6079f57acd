from vmdeploy.cli import main

main()
