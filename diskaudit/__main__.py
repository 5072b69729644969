from diskaudit.cli import main

raise SystemExit(main())
