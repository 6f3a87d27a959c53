from cmdcenter.app import main

main()
