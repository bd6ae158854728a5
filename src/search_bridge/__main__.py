from search_bridge.app import main


main()
