from graduate.cli import main

raise SystemExit(main())
