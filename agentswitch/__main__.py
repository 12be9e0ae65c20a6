from agentswitch.app import main

main()
