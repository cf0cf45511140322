from sheetplot.cli import main

main()
