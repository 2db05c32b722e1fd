from qls.main import main

main()
