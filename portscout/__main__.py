from portscout.main import main

raise SystemExit(main())
