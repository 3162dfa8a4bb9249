from warden.main import main

main()
